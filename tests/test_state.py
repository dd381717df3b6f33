"""
Tests for option validation and run state initialization.
"""

from pathlib import Path

import pytest

from scaffolding.errors import DestinationExistsError, InvalidArgumentError
from scaffolding.filters import FilterSet
from scaffolding.resources import ResourceLedger
from scaffolding.state import PromptDescriptor, RunState, ensure_state, init_state

DEFAULTS = ["!.git", "!node_modules"]


class TestInitState:
    @pytest.mark.parametrize("opts", [None, "foo", 123, ["src", "dest"]])
    def test_options_must_be_mapping(self, opts):
        with pytest.raises(InvalidArgumentError, match="Expected options to be an object"):
            init_state(opts)

    @pytest.mark.parametrize("src", [None, "", 123, ["a"]])
    def test_src_must_be_string(self, src, tmp_path: Path):
        opts = {"dest": str(tmp_path / "out")}
        if src is not None:
            opts["src"] = src
        with pytest.raises(
            InvalidArgumentError,
            match="Expected source to be a path, npm package name, URL, or git repo",
        ):
            init_state(opts)

    @pytest.mark.parametrize("dest", [None, "", 123])
    def test_dest_must_be_string(self, dest):
        opts = {"src": "foo"}
        if dest is not None:
            opts["dest"] = dest
        with pytest.raises(InvalidArgumentError, match="Expected destination to be a path"):
            init_state(opts)

    def test_argument_errors_are_type_errors(self):
        with pytest.raises(TypeError):
            init_state({"src": "foo"})

    def test_dest_is_expanded(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
        monkeypatch.setenv("TK_TEST_DEST", str(tmp_path))
        state = init_state({"src": "foo", "dest": "$TK_TEST_DEST/app"})
        assert state.dest == (tmp_path / "app").resolve()

        monkeypatch.chdir(tmp_path)
        state = init_state({"src": "foo", "dest": "relative"})
        assert state.dest.is_absolute()
        assert state.dest == Path.cwd() / "relative"

    def test_non_empty_dest_fails_without_force(self, tmp_path: Path):
        (tmp_path / "existing.txt").write_text("hi")
        with pytest.raises(DestinationExistsError, match="Destination already exists"):
            init_state({"src": "foo", "dest": str(tmp_path)})

    def test_dest_file_fails_without_force(self, tmp_path: Path):
        target = tmp_path / "file.txt"
        target.write_text("hi")
        with pytest.raises(DestinationExistsError):
            init_state({"src": "foo", "dest": str(target)})

    def test_empty_dest_dir_is_allowed(self, tmp_path: Path):
        empty = tmp_path / "empty"
        empty.mkdir()
        state = init_state({"src": "foo", "dest": str(empty)})
        assert state.dest == empty.resolve()

    def test_force_allows_non_empty_dest(self, tmp_path: Path):
        (tmp_path / "existing.txt").write_text("hi")
        state = init_state({"src": "foo", "dest": str(tmp_path), "force": True})
        assert state.force is True

    @pytest.mark.parametrize("data", ["foo", 123, ["a", "b"]])
    def test_data_must_be_mapping(self, data, tmp_path: Path):
        with pytest.raises(InvalidArgumentError, match="Expected data to be an object"):
            init_state({"src": "foo", "dest": str(tmp_path / "out"), "data": data})

    def test_data_is_copied(self, tmp_path: Path):
        data = {"name": "app"}
        state = init_state({"src": "foo", "dest": str(tmp_path / "out"), "data": data})
        state.data["other"] = 1
        assert data == {"name": "app"}

    @pytest.mark.parametrize("filters", ["*.js", 123, {"a": 1}, [1, 2]])
    def test_filters_must_be_collection_of_patterns(self, filters, tmp_path: Path):
        with pytest.raises(
            InvalidArgumentError,
            match="Expected filters to be an array or set of file patterns",
        ):
            init_state({"src": "foo", "dest": str(tmp_path / "out"), "filters": filters})

    @pytest.mark.parametrize(
        "filters",
        [["*.md"], ("*.md",), {"*.md"}, frozenset({"*.md"}), FilterSet(["*.md"])],
    )
    def test_filters_accept_collections(self, filters, tmp_path: Path):
        state = init_state(
            {"src": "foo", "dest": str(tmp_path / "out"), "filters": filters}, DEFAULTS
        )
        assert list(state.filters) == ["!.git", "!node_modules", "*.md"]

    def test_default_filters(self, tmp_path: Path):
        state = init_state({"src": "foo", "dest": str(tmp_path / "out")}, DEFAULTS)
        assert list(state.filters) == DEFAULTS

    def test_caller_filters_toggle_defaults(self, tmp_path: Path):
        state = init_state(
            {"src": "foo", "dest": str(tmp_path / "out"), "filters": ["node_modules"]}, DEFAULTS
        )
        assert list(state.filters) == ["!.git", "node_modules"]

    def test_npm_args_aliases(self, tmp_path: Path):
        dest = str(tmp_path / "out")
        assert init_state({"src": "a", "dest": dest, "npmArgs": ["--foo"]}).npm_args == ["--foo"]
        assert init_state({"src": "a", "dest": dest, "npm_args": ("--bar",)}).npm_args == ["--bar"]
        with pytest.raises(InvalidArgumentError):
            init_state({"src": "a", "dest": dest, "npm_args": "--foo"})

    def test_defaults_and_extra(self, tmp_path: Path):
        state = init_state({"src": "foo", "dest": str(tmp_path / "out"), "a": "b"})
        assert state.force is False
        assert state.git is True
        assert state.template == "."
        assert state.data == {}
        assert state.meta == {}
        assert state.prompts == {}
        assert state.complete is None
        assert state.extra == {"a": "b"}

    def test_git_false(self, tmp_path: Path):
        state = init_state({"src": "foo", "dest": str(tmp_path / "out"), "git": False})
        assert state.git is False

    def test_ledger_attached_but_empty(self, tmp_path: Path):
        ledger = ResourceLedger(str(tmp_path / "tmp"))
        state = init_state({"src": "foo", "dest": str(tmp_path / "out")}, ledger=ledger)
        assert state.ledger is ledger
        assert state.disposables == ()
        assert not (tmp_path / "tmp").exists()


class TestEnsureState:
    def test_passes_state_through(self):
        state = RunState(src="a", dest="/b")
        assert ensure_state(state) is state

    def test_dest_is_a_path(self):
        state = RunState(src="a", dest="/b")
        assert state.dest == Path("/b")
        assert state.src == "a"

    @pytest.mark.parametrize("value", ["foo", {"src": "a"}, None])
    def test_rejects_other_values(self, value):
        with pytest.raises(InvalidArgumentError, match="Expected options to be an object"):
            ensure_state(value)


class TestPromptDescriptor:
    def test_default_presence(self):
        assert PromptDescriptor(message="Name?").has_default is False
        assert PromptDescriptor(message="Name?", default=None).has_default is True
        assert PromptDescriptor(default="bar").default == "bar"

    def test_extra_keys_preserved(self):
        prompt = PromptDescriptor.model_validate({"message": "Pick", "choices": ["a", "b"]})
        assert prompt.model_extra == {"choices": ["a", "b"]}
