import io
import logging

import numpy as np
import pytest

from eqdskreader import Content, FormatError, read_eqdsk
from eqdskreader.io import eqdsk as eqdsk_mod


PROFILES = ("fpol", "pres", "ffprim", "pprime", "qpsi")


def test_read_eqdsk_smoke(geqdsk_file):
    path, fields = geqdsk_file
    with open(path, "r") as f:
        out = read_eqdsk(f)

    assert isinstance(out, Content)
    assert out.case_id == fields["case_id"]
    assert out.idum == 3
    assert out.nw == fields["nw"]
    assert out.nh == fields["nh"]
    for name in ("rdim", "zdim", "rcentr", "rleft", "zmid", "rmaxis",
                 "zmaxis", "simag", "sibry", "bcentr", "current"):
        assert np.isclose(getattr(out, name), fields[name], rtol=1e-9, atol=1e-12)


def test_profiles_have_nw_points(geqdsk_file):
    path, fields = geqdsk_file
    out = Content(path)
    for name in PROFILES:
        assert getattr(out, name).shape == (out.nw,)
        assert np.allclose(getattr(out, name), fields[name], rtol=1e-9)


def test_psirz_is_indexed_r_then_z(geqdsk_file):
    path, fields = geqdsk_file
    out = Content(path)

    assert out.psirz.shape == (out.nw, out.nh)
    assert out.psirz.size == out.nw * out.nh
    assert np.allclose(out.psirz, fields["psirz"], rtol=1e-9, atol=1e-12)
    expected = (out.rgrid[:, None] - 1.5) ** 2 + out.zgrid[None, :] ** 2
    assert np.allclose(out.psirz, expected, atol=1e-9)

    assert out.psirz_zr.shape == (out.nh, out.nw)
    assert np.array_equal(out.psirz_zr, out.psirz.T)


def test_boundary_and_limiter_lengths(geqdsk_file):
    path, fields = geqdsk_file
    out = Content(path)

    assert out.nbbbs == 3
    assert out.limitr == 4
    assert out.rbbbs.shape == out.zbbbs.shape == (out.nbbbs,)
    assert out.rlim.shape == out.zlim.shape == (out.limitr,)
    assert np.allclose(out.rbbbs, fields["rbbbs"], rtol=1e-9)
    assert np.allclose(out.zbbbs, fields["zbbbs"], atol=1e-9)
    assert np.allclose(out.rlim, fields["rlim"], rtol=1e-9)
    assert np.allclose(out.zlim, fields["zlim"], atol=1e-9)


def test_parsing_twice_gives_equal_content(geqdsk_file):
    path, _ = geqdsk_file
    first = Content(path)
    second = Content(path)
    assert first == second
    assert first is not second


def test_path_text_and_binary_stream_agree(geqdsk_file):
    path, _ = geqdsk_file
    from_path = Content(path)
    from_str_path = Content(str(path))
    with open(path, "r") as f:
        from_stream = read_eqdsk(f)
    from_bytes = read_eqdsk(io.BytesIO(path.read_bytes()))
    from_ctor_stream = Content(io.StringIO(path.read_text()))

    assert from_path == from_str_path == from_stream
    assert from_bytes == from_path
    assert from_ctor_stream == from_path


def test_stream_is_not_closed(geqdsk_file):
    path, _ = geqdsk_file
    stream = io.StringIO(path.read_text())
    read_eqdsk(stream)
    assert not stream.closed


def test_minimal_zero_file(synthetic_fields, geqdsk_text):
    fields = synthetic_fields(nw=2, nh=2, nbbbs=1, limitr=1)
    for key, value in fields.items():
        if isinstance(value, np.ndarray):
            fields[key] = np.zeros_like(value)
        elif isinstance(value, float):
            fields[key] = 0.0
    fields["idum"] = 0

    out = read_eqdsk(io.StringIO(geqdsk_text(fields)))

    assert out.nw == 2 and out.nh == 2
    assert out.psirz.shape == (2, 2)
    assert np.array_equal(out.psirz, np.zeros((2, 2)))
    assert list(out.rbbbs) == [0.0]
    assert list(out.zbbbs) == [0.0]
    assert list(out.rlim) == [0.0]
    assert list(out.zlim) == [0.0]
    assert out.current == 0.0


def test_zero_length_contours(synthetic_fields, geqdsk_text):
    fields = synthetic_fields(nbbbs=0, limitr=0)
    text = geqdsk_text(fields)

    out = read_eqdsk(io.StringIO(text))

    assert out.nbbbs == 0
    assert out.limitr == 0
    for name in ("rbbbs", "zbbbs", "rlim", "zlim"):
        assert getattr(out, name).shape == (0,)
    assert text.rstrip().splitlines()[-1].split() == ["0", "0"]


def test_fortran_d_exponents(geqdsk_file):
    path, _ = geqdsk_file
    text = path.read_text()
    lines = text.splitlines()
    d_text = "\n".join([lines[0]] + [ll.replace("E", "D") for ll in lines[1:]])

    reference = read_eqdsk(io.StringIO(text))
    out = read_eqdsk(io.StringIO(d_text))
    assert out == reference


def test_whitespace_separated_file(synthetic_fields, geqdsk_text):
    fields = synthetic_fields()
    reference = read_eqdsk(io.StringIO(geqdsk_text(fields)))

    text = geqdsk_text(fields, float_fmt=" {:.12e}", header="blank")
    out = read_eqdsk(io.StringIO(text), tokenizer="whitespace")
    auto = read_eqdsk(io.StringIO(text))

    assert out.case_id == fields["case_id"]
    assert out.idum == 3
    assert out.nw == reference.nw and out.nh == reference.nh
    assert np.allclose(out.psirz, reference.psirz, atol=1e-9)
    assert np.allclose(out.qpsi, reference.qpsi)
    assert auto == out


def test_header_without_idum(geqdsk_file):
    path, _ = geqdsk_file
    lines = path.read_text().splitlines()
    lines[0] = "  EFIT case without marker   5   4"

    out = read_eqdsk(io.StringIO("\n".join(lines)))
    assert out.case_id == "EFIT case without marker"
    assert out.idum is None
    assert out.nw == 5 and out.nh == 4


def test_fixed_tokenizer_requires_fixed_header(geqdsk_file):
    path, _ = geqdsk_file
    lines = path.read_text().splitlines()
    lines[0] = "EFIT 3 5 4"

    with pytest.raises(FormatError) as excinfo:
        read_eqdsk(io.StringIO("\n".join(lines)), tokenizer="fixed")
    assert excinfo.value.lineno == 1
    assert excinfo.value.field == "header"


def test_trailing_content_is_ignored(geqdsk_file):
    path, _ = geqdsk_file
    text = path.read_text()
    reference = read_eqdsk(io.StringIO(text))

    assert read_eqdsk(io.StringIO(text + "\n\n   \n")) == reference
    assert read_eqdsk(io.StringIO(text + "   12\n 1.0 2.0\n")) == reference


def test_blank_lines_between_blocks_are_skipped(geqdsk_file):
    path, _ = geqdsk_file
    lines = path.read_text().splitlines()
    reference = read_eqdsk(io.StringIO("\n".join(lines)))

    padded = lines[:5] + [""] + lines[5:]
    assert read_eqdsk(io.StringIO("\n".join(padded))) == reference


def test_repeated_header_slots_are_read_positionally(synthetic_fields, geqdsk_text, caplog):
    fields = synthetic_fields()
    text = geqdsk_text(fields, duplicates={"simag": 0.25, "zmaxis": -0.1})

    with caplog.at_level(logging.WARNING, logger="eqdsk"):
        out = read_eqdsk(io.StringIO(text))

    assert out.simag == 0.0
    assert out.zmaxis == 0.0
    assert out.duplicates["simag"] == 0.25
    assert out.duplicates["zmaxis"] == -0.1
    assert out.duplicates["rmaxis"] == out.rmaxis
    assert out.duplicates["sibry"] == out.sibry
    assert "Repeated simag slot" in caplog.text
    assert "Repeated zmaxis slot" in caplog.text
    assert "Repeated rmaxis slot" not in caplog.text


@pytest.mark.parametrize("keep_lines", [1, 3, 5, 12, -3, -1])
def test_truncated_stream_raises_format_error(geqdsk_file, keep_lines):
    path, _ = geqdsk_file
    lines = path.read_text().splitlines()
    truncated = "\n".join(lines[:keep_lines])

    with pytest.raises(FormatError, match="end of stream"):
        read_eqdsk(io.StringIO(truncated))


def test_truncated_limiter_reports_counts(geqdsk_file):
    path, _ = geqdsk_file
    lines = path.read_text().splitlines()
    truncated = "\n".join(lines[:-1])

    with pytest.raises(FormatError) as excinfo:
        read_eqdsk(io.StringIO(truncated))
    err = excinfo.value
    assert err.field == "rlim, zlim"
    assert err.expected == "8 values"
    assert err.found == "5 values"


def test_block_with_extra_values_raises(geqdsk_file):
    path, _ = geqdsk_file
    lines = path.read_text().splitlines()
    # fpol has 5 values, exactly one line; make it longer.
    lines[5] = lines[5] + " 1.000000000E+00"

    with pytest.raises(FormatError) as excinfo:
        read_eqdsk(io.StringIO("\n".join(lines)))
    assert excinfo.value.field == "fpol"
    assert excinfo.value.lineno == 6


def test_invalid_numeric_token_raises(geqdsk_file):
    path, _ = geqdsk_file
    lines = path.read_text().splitlines()
    lines[2] = lines[2].replace("E", "X", 1)

    with pytest.raises(FormatError) as excinfo:
        read_eqdsk(io.StringIO("\n".join(lines)))
    assert excinfo.value.lineno == 3
    assert isinstance(excinfo.value, ValueError)


def test_invalid_contour_counts_raise(geqdsk_file):
    path, fields = geqdsk_file
    lines = path.read_text().splitlines()
    idx = lines.index(f"{fields['nbbbs']:5d}{fields['limitr']:5d}")

    bad = list(lines)
    bad[idx] = "    3 four"
    with pytest.raises(FormatError, match="integer"):
        read_eqdsk(io.StringIO("\n".join(bad)))

    bad[idx] = "   -1    4"
    with pytest.raises(FormatError, match="negative"):
        read_eqdsk(io.StringIO("\n".join(bad)))


def test_glued_contour_counts(geqdsk_file):
    path, fields = geqdsk_file
    lines = path.read_text().splitlines()
    idx = lines.index(f"{fields['nbbbs']:5d}{fields['limitr']:5d}")
    reference = read_eqdsk(io.StringIO("\n".join(lines)))

    lines[idx] = "0000300004"
    assert read_eqdsk(io.StringIO("\n".join(lines))) == reference


def test_non_positive_grid_raises(geqdsk_file):
    path, _ = geqdsk_file
    lines = path.read_text().splitlines()
    lines[0] = lines[0][:48] + "   3   0   4"

    with pytest.raises(FormatError, match="positive"):
        read_eqdsk(io.StringIO("\n".join(lines)))


def test_unreadable_header_raises():
    with pytest.raises(FormatError) as excinfo:
        read_eqdsk(io.StringIO("just a comment line\n"))
    assert excinfo.value.field == "header"


def test_empty_stream_raises():
    with pytest.raises(FormatError, match="end of stream"):
        read_eqdsk(io.StringIO(""))


def test_non_text_stream_raises(geqdsk_file):
    path, _ = geqdsk_file
    data = bytearray(path.read_bytes())
    first_newline = data.index(b"\n")
    data[first_newline + 3] = 0xFF

    with pytest.raises(FormatError, match="ASCII"):
        read_eqdsk(io.BytesIO(bytes(data)))


def test_missing_file_raises_oserror(tmp_path):
    with pytest.raises(OSError):
        Content(tmp_path / "does_not_exist.geqdsk")


def test_stream_read_error_propagates():
    class _BrokenStream:
        def __iter__(self):
            return self

        def __next__(self):
            raise OSError("device not ready")

    with pytest.raises(OSError, match="device not ready"):
        read_eqdsk(_BrokenStream())


def test_trailing_lines_logged_at_debug(geqdsk_file, caplog):
    path, _ = geqdsk_file
    text = path.read_text() + "  1.0\n  2.0\n"

    with caplog.at_level(logging.DEBUG, logger="eqdsk"):
        read_eqdsk(io.StringIO(text))
    assert "Ignoring 2 trailing lines" in caplog.text


def test_reader_module_logger_has_single_handler():
    root = logging.getLogger("eqdsk")
    assert len(root.handlers) == 1
    assert eqdsk_mod.logger.name == "eqdsk.reader"


def test_bad_byte_inside_float_block_is_not_end_of_stream(geqdsk_file):
    path, _ = geqdsk_file
    lines = path.read_bytes().splitlines(keepends=True)
    # Corrupt the psirz block, well past the header lines.
    bad = bytearray(lines[10])
    bad[2] = 0xFF
    lines[10] = bytes(bad)

    with pytest.raises(FormatError) as excinfo:
        read_eqdsk(io.BytesIO(b"".join(lines)))
    assert "ASCII/UTF-8" in str(excinfo.value)
    assert "end of stream" not in str(excinfo.value)
    assert excinfo.value.lineno == 11


def test_readline_only_stream_is_accepted(geqdsk_file):
    path, _ = geqdsk_file

    class _ReadlineOnly:
        def __init__(self, text):
            self._inner = io.StringIO(text)

        def read(self, size=-1):
            return self._inner.read(size)

        def readline(self):
            return self._inner.readline()

    out = read_eqdsk(_ReadlineOnly(path.read_text()))
    assert out == Content(path)


def test_unknown_log_level_falls_back_to_info(monkeypatch, caplog):
    import importlib

    monkeypatch.setenv("EQDSKREADER_LOG_LEVEL", "verbose")
    try:
        with caplog.at_level(logging.WARNING):
            importlib.reload(eqdsk_mod)
        assert logging.getLogger("eqdsk").level == logging.INFO
        assert "Unknown log level 'VERBOSE'" in caplog.text

        monkeypatch.setenv("EQDSKREADER_LOG_LEVEL", "debug")
        importlib.reload(eqdsk_mod)
        assert logging.getLogger("eqdsk").level == logging.DEBUG
    finally:
        monkeypatch.delenv("EQDSKREADER_LOG_LEVEL")
        importlib.reload(eqdsk_mod)

    assert logging.getLogger("eqdsk").level == logging.INFO
    assert len(logging.getLogger("eqdsk").handlers) == 1
