"""Tests for Lockfile package management, integrity and serialization."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from lockstep.core.lockfile import DIRECT_MAIN, Lockfile
from lockstep.core.source import HostedSource
from lockstep.core.version import Version
from lockstep.exceptions import LockfileError


class TestPackageManagement:
    """Add, get, count and list."""

    def test_add_and_get(self, make_package) -> None:
        lf = Lockfile()
        lf.add_package(make_package("http", "1.2.0"))
        assert "http" in lf
        assert lf.get_package("http").version == "1.2.0"
        assert lf.get_package("missing") is None

    def test_replace_by_name(self, make_package) -> None:
        lf = Lockfile()
        lf.add_package(make_package("http", "1.0.0"))
        lf.add_package(make_package("http", "1.2.0"))
        assert lf.package_count == 1
        assert lf.metadata.total_packages == 1
        assert lf.get_package("http").version == "1.2.0"

    def test_names_sorted(self, make_package, make_lockfile) -> None:
        lf = make_lockfile(make_package("zeta"), make_package("alpha"))
        assert lf.package_names == ["alpha", "zeta"]


class TestIntegrity:
    """Fingerprint computation and verification."""

    def test_compute(self) -> None:
        digest = Lockfile.compute_integrity("content")
        assert digest.startswith("sha256:") and len(digest) == 71

    def test_verify(self, make_package, make_lockfile) -> None:
        lf = make_lockfile(make_package("a", content="tarball"))
        assert lf.verify_integrity("a", "tarball") is True
        assert lf.verify_integrity("a", "tampered") is False
        assert lf.verify_integrity("b", "tarball") is False


class TestSolverInput:
    """``package_id`` and ``preferences``."""

    def test_package_id(self, make_package, make_lockfile) -> None:
        lf = make_lockfile(make_package("a", "1.2.0"))
        pid = lf.package_id("a")
        assert pid.version == Version(1, 2, 0)
        assert pid.source == HostedSource("https://pub.dev")
        assert pid.fingerprint == lf.get_package("a").fingerprint

    def test_package_id_missing(self) -> None:
        with pytest.raises(LockfileError, match="not locked"):
            Lockfile().package_id("a")

    def test_preferences_skip_malformed(self, make_package, make_lockfile) -> None:
        bad = make_package("bad", "not.a.version")
        lf = make_lockfile(make_package("good"), bad)
        assert list(lf.preferences()) == ["good"]

    def test_preferences_skip_unknown_source(self, make_package, make_lockfile) -> None:
        odd = make_package("odd")
        odd.source = {"kind": "ftp"}
        assert make_lockfile(odd).preferences() == {}


class TestSerialization:
    """Deterministic JSON output and round trips."""

    def test_to_dict_shape(self, make_package, make_lockfile) -> None:
        lf = make_lockfile(
            make_package("a", dependency=DIRECT_MAIN, features=["z", "b"], dependencies={"c": "1.0.0"}),
            make_package("c"),
        )
        data = lf.to_dict()
        assert data["lockfile_version"] == "1.0"
        assert data["generated_by"] == "lockstep"
        assert data["integrity_algorithm"] == "sha256"
        assert data["metadata"] == {
            "total_packages": 2, "resolution_mode": "prefer-locked", "root": "app",
        }
        entry = data["packages"]["a"]
        assert entry["features"] == ["b", "z"]
        assert entry["dependency"] == "direct main"
        assert entry["source"] == {"kind": "hosted", "url": "https://pub.dev"}

    def test_no_timestamp(self, make_package, make_lockfile) -> None:
        text = make_lockfile(make_package("a")).to_json()
        assert "generated_at" not in text
        assert "timestamp" not in text

    def test_insertion_order_irrelevant(self, make_package, make_lockfile) -> None:
        one = make_lockfile(make_package("a"), make_package("b"))
        two = make_lockfile(make_package("b"), make_package("a"))
        assert one.to_json() == two.to_json()

    def test_to_json_ends_with_newline(self, make_package, make_lockfile) -> None:
        text = make_lockfile(make_package("a")).to_json()
        assert text.endswith("}\n")
        assert json.loads(text)["packages"]["a"]["version"] == "1.0.0"

    def test_json_round_trip(self, make_package, make_lockfile) -> None:
        lf = make_lockfile(make_package("a", dependencies={"b": "2.0.0"}), make_package("b", "2.0.0"))
        again = Lockfile.from_json(lf.to_json())
        assert again.to_json() == lf.to_json()

    def test_write_and_read(self, tmp_path: Path, make_package, make_lockfile) -> None:
        path = tmp_path / "nested" / "lockstep.lock"
        lf = make_lockfile(make_package("a"))
        lf.write(path)
        assert Lockfile.read(path).to_dict() == lf.to_dict()

    def test_from_dict_defaults(self) -> None:
        lf = Lockfile.from_dict({"packages": {"a": {"version": "1.0.0"}}})
        assert lf.get_package("a").dependency == "transitive"
        assert lf.metadata.resolution_mode == "manual"
        assert lf.metadata.total_packages == 1


class TestDeserializationErrors:
    """Malformed documents raise ``LockfileError``."""

    def test_invalid_json(self) -> None:
        with pytest.raises(LockfileError, match="not valid JSON"):
            Lockfile.from_json("{not json")

    @pytest.mark.parametrize(
        "data", [[], {"packages": []}, {"packages": {"a": "1.0.0"}}]
    )
    def test_bad_shape(self, data) -> None:
        with pytest.raises(LockfileError):
            Lockfile.from_dict(data)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(LockfileError, match="Could not read"):
            Lockfile.read(tmp_path / "nope.lock")
