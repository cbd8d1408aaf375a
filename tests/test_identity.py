"""Tests for the identity registry and identity validation flags."""

from __future__ import annotations

import pandas as pd
import pytest

from surveylink.identity.registry import (
    generate_registry,
    load_registry,
    registry_from_frame,
    write_registry,
)
from surveylink.identity.validate_identity import (
    flag_ac_duplicate,
    flag_blank_code,
    flag_invalid_code,
    validate_identity,
)
from surveylink.link.link_records import link_records
from surveylink.schemas.quality_flags import AC_DUPLICATE, BLANK_CODE, INVALID_CODE
from surveylink.schemas.study import R_CODE_ALPHABET, S_CODE_ALPHABET


class TestGenerateRegistry:
    """Tests for registry generation."""

    def test_size_and_uniqueness(self) -> None:
        df = generate_registry(n=200, seed=1)

        assert len(df) == 200
        assert not df.duplicated(subset=["r_code", "s_code"]).any()

    def test_code_format(self) -> None:
        df = generate_registry(n=50, seed=2)

        assert (df["r_code"].str.len() == 3).all()
        assert (df["s_code"].str.len() == 10).all()
        assert df["r_code"].map(lambda code: set(code) <= set(R_CODE_ALPHABET)).all()
        assert df["s_code"].map(lambda code: set(code) <= set(S_CODE_ALPHABET)).all()

    def test_seed_reproducible(self) -> None:
        pd.testing.assert_frame_equal(
            generate_registry(n=20, seed=7),
            generate_registry(n=20, seed=7),
        )


class TestLoadRegistry:
    """Tests for reading and writing the registry file."""

    def test_round_trip(self, tmp_path) -> None:
        df = generate_registry(n=30, seed=3)
        path = write_registry(df, tmp_path / "registry.csv")

        registry = load_registry(path, expected_size=30)

        assert len(registry) == 30
        first = df.iloc[0]
        assert first["s_code"] + first["r_code"] in registry

    def test_leading_zeros_preserved(self, tmp_path) -> None:
        df = pd.DataFrame({"r_code": ["1AB"], "s_code": ["0000000001"]})
        path = write_registry(df, tmp_path / "registry.csv")

        registry = load_registry(path, expected_size=1)

        assert "00000000011AB" in registry

    def test_wrong_size_raises(self) -> None:
        """A registry must hold exactly the issued number of pairs."""
        df = generate_registry(n=10, seed=4)
        with pytest.raises(ValueError, match="Wrong size"):
            registry_from_frame(df)

    def test_malformed_code_raises(self) -> None:
        df = pd.DataFrame({"r_code": ["1C0"], "s_code": ["ABCDEFGHIJ"]})
        with pytest.raises(ValueError, match="Malformed values"):
            registry_from_frame(df, expected_size=None)

    def test_missing_file_raises(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError):
            load_registry(tmp_path / "absent.csv")

    def test_refuses_overwrite(self, tmp_path) -> None:
        df = generate_registry(n=5, seed=5)
        path = write_registry(df, tmp_path / "registry.csv")
        with pytest.raises(FileExistsError):
            write_registry(df, path)


class TestInvalidCode:
    """invalid_code = 1 iff the code is present, non-empty and not issued."""

    def test_issued_code_passes(self, make_registry) -> None:
        df = pd.DataFrame({"id_code": ["ABCDEFG0001AB"]})
        result = flag_invalid_code(df, make_registry())
        assert result[INVALID_CODE].tolist() == [0]

    def test_unissued_code_flagged(self, make_registry) -> None:
        df = pd.DataFrame({"id_code": ["ZZZZZZZZZZ1AB"]})
        result = flag_invalid_code(df, make_registry())
        assert result[INVALID_CODE].tolist() == [1]

    def test_missing_code_not_invalid(self, make_registry) -> None:
        df = pd.DataFrame({"id_code": pd.array([pd.NA, ""], dtype="string")})
        result = flag_invalid_code(df, make_registry())
        assert result[INVALID_CODE].tolist() == [0, 0]


class TestBlankCode:
    """blank_code = 1 iff missing, not 13 characters, or the NANA placeholder."""

    def test_well_formed_passes(self) -> None:
        df = pd.DataFrame({"id_code": ["ABCDEFG0001AB", "ZZZZZZZZZZ1AB"]})
        assert flag_blank_code(df)[BLANK_CODE].tolist() == [0, 0]

    def test_blank_forms_flagged(self) -> None:
        df = pd.DataFrame(
            {"id_code": pd.array(["NANA", "ABCDEFG000NA", pd.NA, "SHORT"], dtype="string")}
        )
        assert flag_blank_code(df)[BLANK_CODE].tolist() == [1, 1, 1, 1]


class TestAcDuplicate:
    """ac_duplicate = 1 for every record sharing an access code."""

    def test_shared_code_flags_all_holders(self) -> None:
        df = pd.DataFrame({"access_code": ["AC1", "AC2", "AC1", None, None]})
        result = flag_ac_duplicate(df)
        assert result[AC_DUPLICATE].tolist() == [1, 0, 1, 0, 0]


class TestValidateIdentity:
    """Tests for the combined validator on linked records."""

    def test_clean_records_pass(self, make_streams, make_registry) -> None:
        unified = link_records(make_streams(), verbose=False)
        result = validate_identity(unified, make_registry(), verbose=False)

        for flag in (INVALID_CODE, BLANK_CODE, AC_DUPLICATE):
            assert result[flag].sum() == 0

    def test_missing_codes_are_both_blank_and_invalid(
        self, make_streams, make_baseline, make_registry
    ) -> None:
        """Neither code entered renders as NANA, which is blank and not issued."""
        baseline = make_baseline(n_rows=2)
        baseline.loc[1, ["s_code", "r_code"]] = None
        unified = link_records(make_streams(baseline=baseline), verbose=False)

        result = validate_identity(unified, make_registry(), verbose=False)

        assert result[BLANK_CODE].tolist() == [0, 1]
        assert result[INVALID_CODE].tolist() == [0, 1]

    def test_test_entries_not_exempt(self, make_streams, make_baseline, make_registry) -> None:
        baseline = make_baseline(n_rows=1)
        baseline["s_code"] = "TESTTESTTE"
        unified = link_records(make_streams(baseline=baseline), verbose=False)

        result = validate_identity(unified, make_registry(), verbose=False)

        assert result[INVALID_CODE].tolist() == [1]

    def test_rerun_on_flagged_raises(self, make_streams, make_registry) -> None:
        """Flags are never overwritten."""
        unified = link_records(make_streams(), verbose=False)
        flagged = validate_identity(unified, make_registry(), verbose=False)
        with pytest.raises(ValueError, match="Column already exists"):
            validate_identity(flagged, make_registry(), verbose=False)
