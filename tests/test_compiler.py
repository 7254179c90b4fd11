import hashlib

import pytest

from conftest import write_tree
from stylebuild.compiler import AssetUrlRewrite, StylesheetCompiler, write_if_changed
from stylebuild.config import CompressionStyle
from stylebuild.errors import CompileError
from stylebuild.file_operations import LocalFileSystem
from stylebuild.manifest import BuildManifest
from stylebuild.models import CompilationUnit, CompiledResult
from stylebuild.path_resolver import resolve

STYLESHEET = b"""
// layout
$gutter: 10px;
.page {
  margin: $gutter;
  .title { padding: $gutter * 2; }
}
"""


@pytest.fixture
def unit(dest_root):
    return CompilationUnit("site.scss", "site.css", dest_root / "site.css")


class TestCompile:
    def test_deterministic(self, make_config, unit):
        compiler = StylesheetCompiler(make_config())

        first = compiler.compile(unit, STYLESHEET)
        second = StylesheetCompiler(make_config()).compile(unit, STYLESHEET)

        assert first.data == second.data
        assert first.content_hash == second.content_hash
        assert first.content_hash == hashlib.sha256(first.data).hexdigest()

    def test_compact_style(self, make_config, unit):
        result = StylesheetCompiler(make_config()).compile(unit, STYLESHEET)

        assert b".page{margin:10px}" in result.data
        assert b".page .title{padding:20px}" in result.data
        assert b"layout" not in result.data

    def test_readable_style(self, make_config, unit):
        config = make_config(compression_style=CompressionStyle.READABLE)

        result = StylesheetCompiler(config).compile(unit, STYLESHEET)

        assert b".page {\n  margin: 10px;\n}" in result.data

    def test_line_comments(self, make_config, unit):
        config = make_config(compression_style=CompressionStyle.READABLE, suppress_comments=False)
        suppressed = make_config(compression_style=CompressionStyle.READABLE, suppress_comments=True)

        with_comments = StylesheetCompiler(config).compile(unit, STYLESHEET)
        without = StylesheetCompiler(suppressed).compile(unit, STYLESHEET)

        assert b"/* line " in with_comments.data
        assert b"/* line " not in without.data

    def test_indented_syntax(self, make_config, dest_root):
        sass_unit = CompilationUnit("site.sass", "site.css", dest_root / "site.css")

        result = StylesheetCompiler(make_config()).compile(sass_unit, b"a\n  width: 1px\n")

        assert b"a{width:1px}" in result.data

    def test_syntax_error(self, make_config, unit):
        with pytest.raises(CompileError) as exc_info:
            StylesheetCompiler(make_config()).compile(unit, b".broken { color: red;")

        assert exc_info.value.unit_id == "site.scss"

    def test_invalid_utf8(self, make_config, unit):
        with pytest.raises(CompileError, match="UTF-8"):
            StylesheetCompiler(make_config()).compile(unit, b"a { content: '\xff'; }")

    def test_imports_served_from_manifest(self, make_config, source_root):
        write_tree(
            source_root,
            {
                "site.scss": '@import "partials/*";\n.site { width: 3px; }',
                "partials/_a.scss": ".a { width: 1px; }",
                "partials/_b.scss": '@import "../mixins";\n.b { @include wide; }',
                "_mixins.scss": "@mixin wide { width: 2px; }",
            },
        )
        config = make_config()
        units = resolve(source_root, config.patterns, config.dest_root)
        manifest = BuildManifest.scan(config, units, LocalFileSystem())

        result = StylesheetCompiler(config).compile(
            units[0], manifest.sources["site.scss"].content, manifest
        )

        data = result.data
        assert b".a{width:1px}" in data
        assert b".b{width:2px}" in data
        assert data.index(b".a{") < data.index(b".b{") < data.index(b".site{")

    def test_asset_helpers_in_partials(self, make_config, source_root):
        write_tree(
            source_root,
            {
                "site.scss": '@import "icons";',
                "_icons.scss": '$icon: "star.png";\n.star { background: image-url($icon); }',
            },
        )
        config = make_config(public_path_prefix="/troydm/")
        units = resolve(source_root, config.patterns, config.dest_root)
        manifest = BuildManifest.scan(config, units, LocalFileSystem())

        result = StylesheetCompiler(config).compile(
            units[0], manifest.sources["site.scss"].content, manifest
        )

        assert b"/troydm/images/star.png" in result.data

    @pytest.mark.parametrize(
        "files",
        [
            {
                "site.scss": '@import "base";\n.site { width: 3px; }',
                "_base.sass": "// partial\n.b\n  width: 1px // narrow\n  &:hover\n    width: 2px\n",
            },
            {
                "site.sass": '@import "base"\n.site\n  width: 3px\n',
                "_base.scss": ".b { width: 1px; &:hover { width: 2px; } }",
            },
            {
                "site.sass": '@import "base"\n.site\n  width: 3px\n',
                "_base.sass": ".b\n  width: 1px\n  &:hover\n    width: 2px\n",
            },
        ],
        ids=["scss-imports-sass", "sass-imports-scss", "sass-imports-sass"],
    )
    def test_mixed_syntax_imports(self, make_config, source_root, files):
        write_tree(source_root, files)
        config = make_config()
        units = resolve(source_root, config.patterns, config.dest_root)
        manifest = BuildManifest.scan(config, units, LocalFileSystem())

        result = StylesheetCompiler(config).compile(
            units[0], manifest.sources[units[0].source_id].content, manifest
        )

        assert b".b{width:1px}" in result.data
        assert b".b:hover{width:2px}" in result.data
        assert b".site{width:3px}" in result.data

    def test_indented_partial_keeps_asset_helpers(self, make_config, source_root):
        write_tree(
            source_root,
            {"site.scss": '@import "icons";', "_icons.sass": '.star\n  background: image-url("star.png")\n'},
        )
        config = make_config(public_path_prefix="/troydm/")
        units = resolve(source_root, config.patterns, config.dest_root)
        manifest = BuildManifest.scan(config, units, LocalFileSystem())

        result = StylesheetCompiler(config).compile(
            units[0], manifest.sources["site.scss"].content, manifest
        )

        assert b"/troydm/images/star.png" in result.data

    def test_cyclic_import_is_cut(self, make_config, source_root):
        write_tree(
            source_root,
            {
                "site.scss": '@import "one";\n.site { width: 3px; }',
                "_one.scss": '@import "two";\n.one { width: 1px; }',
                "_two.scss": '@import "one", "site";\n.two { width: 2px; }',
            },
        )
        config = make_config()
        units = resolve(source_root, config.patterns, config.dest_root)
        manifest = BuildManifest.scan(config, units, LocalFileSystem())

        result = StylesheetCompiler(config).compile(
            units[0], manifest.sources["site.scss"].content, manifest
        )

        assert result.data.count(b".one{") == 1
        assert result.data.count(b".site{") == 1
        assert result.data.index(b".two{") < result.data.index(b".one{") < result.data.index(b".site{")


class TestAssetUrlRewrite:
    @pytest.fixture
    def rewrite(self):
        return AssetUrlRewrite("/troydm/images", "/troydm/fonts/")

    def test_literal(self, rewrite):
        text = '.a { background: image-url("logo.png") no-repeat; }'
        assert rewrite.apply(text, "site.scss") == (
            '.a { background: url("/troydm/images/logo.png") no-repeat; }'
        )

    def test_font(self, rewrite):
        text = "src: font-url('icons.woff');"
        assert rewrite.apply(text, "site.scss") == 'src: url("/troydm/fonts/icons.woff");'

    def test_expression_uses_interpolation(self, rewrite):
        assert rewrite.apply("b: image-url($name);", "s.scss") == 'b: url("/troydm/images/#{$name}");'

    def test_extra_arguments_dropped(self, rewrite):
        assert rewrite.apply('b: image-url("x.png", true);', "s.scss") == 'b: url("/troydm/images/x.png");'

    def test_absolute_urls_pass_through(self, rewrite):
        text = 'a: image-url("/static/x.png"); b: image-url("https://cdn/x.png");'
        assert rewrite.apply(text, "s.scss") == 'a: url("/static/x.png"); b: url("https://cdn/x.png");'

    def test_comments_and_strings_untouched(self, rewrite):
        text = '/* image-url("a.png") */ // image-url("b.png")\ncontent: "image-url(c.png)";'
        assert rewrite.apply(text, "s.scss") == text

    def test_longer_identifier_untouched(self, rewrite):
        text = "a: my-image-url(x);"
        assert rewrite.apply(text, "s.scss") == text

    def test_missing_asset_warns(self, tmp_path, caplog):
        images = tmp_path / "images"
        images.mkdir()
        (images / "here.png").write_bytes(b"")
        rewrite = AssetUrlRewrite("/i", "/f", images_dir=images)

        with caplog.at_level("WARNING", logger="stylebuild.compiler"):
            rewrite.apply('a: image-url("here.png"); b: image-url("gone.png");', "s.scss")

        assert "gone.png" in caplog.text
        assert "here.png" not in caplog.text


class TestWriteIfChanged:
    def test_writes_then_skips(self, unit, recording_fs):
        result = CompiledResult(b"a{b:c}\n", hashlib.sha256(b"a{b:c}\n").hexdigest())

        assert write_if_changed(unit, result, recording_fs) is True
        assert unit.destination.read_bytes() == b"a{b:c}\n"
        assert unit.output_hash == result.content_hash

        assert write_if_changed(unit, result, recording_fs) is False
        assert recording_fs.writes == [unit.destination]

    def test_rewrites_on_new_content(self, unit, recording_fs):
        old = CompiledResult(b"old", hashlib.sha256(b"old").hexdigest())
        new = CompiledResult(b"new", hashlib.sha256(b"new").hexdigest())

        write_if_changed(unit, old, recording_fs)
        assert write_if_changed(unit, new, recording_fs) is True

        assert unit.destination.read_bytes() == b"new"
        assert unit.output_hash == new.content_hash
        assert len(recording_fs.writes) == 2

    def test_write_failure(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        unit = CompilationUnit("site.scss", "site.css", blocker / "site.css")
        result = CompiledResult(b"x", hashlib.sha256(b"x").hexdigest())

        with pytest.raises(CompileError, match="cannot write"):
            write_if_changed(unit, result)

        assert unit.output_hash is None
