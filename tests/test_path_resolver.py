import pytest

from conftest import write_tree
from stylebuild.errors import ResolutionError
from stylebuild.path_resolver import output_id_for, resolve


class TestResolve:
    def test_maps_sources_to_css_under_dest(self, source_root, dest_root):
        write_tree(source_root, {"screen.scss": "", "admin/panel.sass": ""})

        units = resolve(source_root, ["**/*.scss", "**/*.sass"], dest_root)

        assert [u.source_id for u in units] == ["screen.scss", "admin/panel.sass"]
        assert units[0].destination == dest_root / "screen.css"
        assert units[1].output_id == "admin/panel.css"
        assert units[1].destination == dest_root / "admin" / "panel.css"

    def test_first_seen_order_and_no_duplicates(self, source_root, dest_root):
        write_tree(source_root, {"a.scss": "", "b.scss": "", "c.scss": ""})

        units = resolve(source_root, ["c.scss", "*.scss", "a.scss"], dest_root)

        ids = [u.source_id for u in units]
        assert ids == ["c.scss", "a.scss", "b.scss"]
        assert len(ids) == len(set(ids))

    def test_order_is_independent_of_creation_order(self, source_root, dest_root):
        write_tree(source_root, {"z.scss": "", "m.scss": "", "a.scss": ""})

        units = resolve(source_root, ["*.scss"], dest_root)

        assert [u.source_id for u in units] == ["a.scss", "m.scss", "z.scss"]

    def test_partials_are_not_units(self, source_root, dest_root):
        write_tree(source_root, {"_base.scss": "", "partials/_grid.scss": "", "site.scss": ""})

        units = resolve(source_root, ["**/*.scss"], dest_root)

        assert [u.source_id for u in units] == ["site.scss"]

    def test_non_stylesheets_are_ignored(self, source_root, dest_root):
        write_tree(source_root, {"notes.txt": "", "plain.css": "", "site.scss": ""})

        units = resolve(source_root, ["*"], dest_root)

        assert [u.source_id for u in units] == ["site.scss"]

    def test_exclude_and_always_ignored(self, source_root, dest_root):
        write_tree(
            source_root,
            {
                "site.scss": "",
                "vendor/lib.scss": "",
                ".sass-cache/stale.scss": "",
                "node_modules/pkg/x.scss": "",
            },
        )

        units = resolve(source_root, ["**/*.scss"], dest_root, exclude=["vendor/"])

        assert [u.source_id for u in units] == ["site.scss"]

    def test_zero_matches_is_valid(self, source_root, dest_root):
        write_tree(source_root, {"site.scss": ""})

        assert resolve(source_root, ["*.sass"], dest_root) == []

    def test_missing_source_root(self, tmp_path, dest_root):
        with pytest.raises(ResolutionError, match="not found"):
            resolve(tmp_path / "missing", ["*.scss"], dest_root)

    @pytest.mark.parametrize("pattern", ["", "   ", "/abs/*.scss", "../*.scss", "!*.scss", "[z-a].scss"])
    def test_invalid_patterns(self, source_root, dest_root, pattern):
        with pytest.raises(ResolutionError):
            resolve(source_root, [pattern], dest_root)

    def test_invalid_exclude_pattern(self, source_root, dest_root):
        with pytest.raises(ResolutionError, match="exclude"):
            resolve(source_root, ["*.scss"], dest_root, exclude=["[z-a]/"])

    def test_single_string_is_not_a_pattern_list(self, source_root, dest_root):
        with pytest.raises(ResolutionError):
            resolve(source_root, "*.scss", dest_root)


def test_output_id_replaces_extension():
    assert output_id_for("a/b/site.sass") == "a/b/site.css"
