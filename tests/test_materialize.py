"""
Tests for filename rendering, binary detection and file copying.
"""

import os
from pathlib import Path

import pytest

from conftest import BINARY_BYTES
from plugins import HookPipeline
from scaffolding.errors import RenderError
from scaffolding.filters import FilterSet
from scaffolding.materialize import copy_tree, is_binary_file, render_filename
from scaffolding.state import RunState


class TestRenderFilename:
    def test_replaces_known_tokens(self):
        result = render_filename("/foo/{{bar}}/{{null}}/_baz{{wiz}}.txt", {"bar": "bow", "wiz": "wow"})
        assert result == "/foo/bow/{{null}}/_bazwow.txt"

    def test_unknown_tokens_stay(self):
        assert render_filename("{{a}}/{{b}}", {"a": 1}) == "1/{{b}}"

    def test_slash_bodies_never_match(self):
        assert render_filename("/foo/{{bar/null}}", {"bar": "x", "bar/null": "y"}) == "/foo/{{bar/null}}"

    def test_nested_tokens_not_substituted_whole(self):
        assert render_filename("{{bar{{baz}}}}", {"bar": "x"}) == "{{bar{{baz}}}}"
        assert render_filename("{{bar{{baz}}}}", {"baz": "y"}) == "{{bary}}"

    def test_values_are_stringified(self):
        assert render_filename("v{{n}}-{{flag}}", {"n": 2, "flag": True}) == "v2-True"

    @pytest.mark.parametrize("data", [None, "foo", 123, ["bar"]])
    def test_non_mapping_data_returns_input(self, data):
        assert render_filename("/foo/{{bar}}", data) == "/foo/{{bar}}"

    def test_non_string_path_returned_unchanged(self):
        assert render_filename(None, {"a": 1}) is None
        assert render_filename(42, {"a": 1}) == 42


class TestIsBinaryFile:
    def test_nul_byte_is_binary(self, tmp_path: Path):
        path = tmp_path / "logo.png"
        path.write_bytes(BINARY_BYTES)
        assert is_binary_file(str(path)) is True

    def test_invalid_utf8_is_binary(self, tmp_path: Path):
        path = tmp_path / "data.bin"
        path.write_bytes(b"\xff\xfe\xfa\xfb" * 10)
        assert is_binary_file(str(path)) is True

    def test_utf8_text(self, tmp_path: Path):
        path = tmp_path / "text.txt"
        path.write_text("héllo wörld\n", encoding="utf-8")
        assert is_binary_file(str(path)) is False

    def test_empty_file_is_text(self, tmp_path: Path):
        path = tmp_path / "empty"
        path.write_bytes(b"")
        assert is_binary_file(str(path)) is False


class TestCopyTree:
    def _state(self, src: Path, dest: Path, **kwargs) -> RunState:
        return RunState(
            src=str(src),
            dest=str(dest),
            filters=FilterSet(["!.git", "!node_modules"]),
            **kwargs,
        )

    async def test_renders_text_and_copies_binary(self, basic_template: Path, dest: Path):
        state = self._state(basic_template, dest, data={"name": "demo", "author": "Ada"})
        written = await copy_tree(state, HookPipeline())

        assert (dest / "README.md").read_text() == "# demo\n"
        assert (dest / "demo.txt").read_text() == "Made by Ada\n"
        assert (dest / "logo.png").read_bytes() == BINARY_BYTES
        assert (dest / "src" / "index.js").read_text() == "console.log('hello');\n"
        assert not (dest / ".git").exists()
        assert not (dest / "node_modules").exists()
        assert len(written) == 5
        assert dest / "README.md" in written

    async def test_copy_file_hook_per_file(self, basic_template: Path, dest: Path):
        pipeline = HookPipeline()
        seen = []
        pipeline.observe("copy-file", lambda state: seen.append((state.src_file, state.dest_file)))

        state = self._state(basic_template, dest, data={"name": "demo", "author": "Ada"})
        await copy_tree(state, pipeline)

        assert len(seen) == 5
        assert (basic_template / "README.md", dest / "README.md") in seen
        assert state.src_file is None
        assert state.dest_file is None

    async def test_copy_file_can_be_vetoed(self, basic_template: Path, dest: Path):
        pipeline = HookPipeline()

        async def skip_png(state, proceed):
            if state.src_file.suffix != ".png":
                await proceed()

        pipeline.on("copy-file", skip_png)
        state = self._state(basic_template, dest, data={"name": "demo", "author": "Ada"})
        written = await copy_tree(state, pipeline)

        assert not (dest / "logo.png").exists()
        assert len(written) == 4

    async def test_missing_data_raises_render_error(self, basic_template: Path, dest: Path):
        state = self._state(basic_template, dest, data={})
        with pytest.raises(RenderError) as exc_info:
            await copy_tree(state, HookPipeline())
        assert Path(exc_info.value.path).name == "README.md"

    async def test_includes_resolve_from_template_root(self, make_tree, dest: Path):
        root = make_tree(
            {"_partials/header.txt": "Project {{ name }}", "README.md": "{% include '_partials/header.txt' %}\n"},
            name="includes",
        )
        state = self._state(root, dest, data={"name": "demo"})
        state.filters.add("!_partials")
        await copy_tree(state, HookPipeline())

        assert (dest / "README.md").read_text() == "Project demo\n"
        assert not (dest / "_partials").exists()

    async def test_preserves_executable_bit(self, make_tree, dest: Path):
        root = make_tree({"bin/run.sh": "#!/bin/sh\necho hi\n"}, name="exec")
        os.chmod(root / "bin" / "run.sh", 0o755)

        await copy_tree(self._state(root, dest), HookPipeline())
        assert os.access(dest / "bin" / "run.sh", os.X_OK)

    async def test_leaves_no_temp_files(self, basic_template: Path, dest: Path):
        state = self._state(basic_template, dest, data={"name": "demo", "author": "Ada"})
        await copy_tree(state, HookPipeline())
        leftovers = [p for p in dest.rglob(".tk-*")]
        assert leftovers == []
