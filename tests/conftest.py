import numpy as np
import pytest


def _make_fields(nw=5, nh=4, nbbbs=3, limitr=4):
    rleft, rdim = 1.0, 1.0
    zmid, zdim = 0.0, 1.2
    rgrid = np.linspace(rleft, rleft + rdim, nw)
    zgrid = np.linspace(zmid - 0.5 * zdim, zmid + 0.5 * zdim, nh)
    rr, zz = np.meshgrid(rgrid, zgrid, indexing="ij")

    theta_b = np.linspace(0.0, 2.0 * np.pi, nbbbs, endpoint=False)
    theta_l = np.linspace(0.0, 2.0 * np.pi, limitr, endpoint=False)
    return {
        "case_id": "SYNTH 01/01/2026 #000001 1000ms",
        "idum": 3,
        "nw": nw,
        "nh": nh,
        "rdim": rdim,
        "zdim": zdim,
        "rcentr": 1.5,
        "rleft": rleft,
        "zmid": zmid,
        "rmaxis": 1.5,
        "zmaxis": 0.0,
        "simag": 0.0,
        "sibry": 1.0,
        "bcentr": 2.0,
        "current": 1.0e6,
        "fpol": np.linspace(3.0, 2.9, nw),
        "pres": np.linspace(1.0e4, 0.0, nw),
        "ffprim": np.linspace(-0.5, -0.1, nw),
        "pprime": np.linspace(-2.0e4, -1.0e3, nw),
        "psirz": (rr - 1.5) ** 2 + zz ** 2,
        "qpsi": np.linspace(1.0, 3.5, nw),
        "nbbbs": nbbbs,
        "limitr": limitr,
        "rbbbs": 1.5 + 0.3 * np.cos(theta_b),
        "zbbbs": 0.4 * np.sin(theta_b),
        "rlim": 1.5 + 0.45 * np.cos(theta_l),
        "zlim": 0.55 * np.sin(theta_l),
    }


def _block(values, float_fmt):
    values = list(np.asarray(values, dtype=float).ravel())
    return ["".join(float_fmt.format(v) for v in values[i:i + 5])
            for i in range(0, len(values), 5)]


def _make_text(fields, float_fmt="{:16.9E}", header="fixed", duplicates=None):
    f = fields
    dup = {"simag": f["simag"], "rmaxis": f["rmaxis"],
           "zmaxis": f["zmaxis"], "sibry": f["sibry"]}
    dup.update(duplicates or {})

    if header == "fixed":
        lines = [f"{f['case_id']:<48.48}{f['idum']:4d}{f['nw']:4d}{f['nh']:4d}"]
    else:
        lines = [f"{f['case_id']} {f['idum']} {f['nw']} {f['nh']}"]

    lines += _block([f["rdim"], f["zdim"], f["rcentr"], f["rleft"], f["zmid"]], float_fmt)
    lines += _block([f["rmaxis"], f["zmaxis"], f["simag"], f["sibry"], f["bcentr"]], float_fmt)
    lines += _block([f["current"], dup["simag"], 0.0, dup["rmaxis"], 0.0], float_fmt)
    lines += _block([dup["zmaxis"], 0.0, dup["sibry"], 0.0, 0.0], float_fmt)
    for name in ("fpol", "pres", "ffprim", "pprime"):
        lines += _block(f[name], float_fmt)
    # R index varies fastest on disk.
    lines += _block(np.asarray(f["psirz"]).T, float_fmt)
    lines += _block(f["qpsi"], float_fmt)
    lines.append(f"{f['nbbbs']:5d}{f['limitr']:5d}")
    lines += _block(np.column_stack((f["rbbbs"], f["zbbbs"])), float_fmt)
    lines += _block(np.column_stack((f["rlim"], f["zlim"])), float_fmt)
    return "\n".join(lines) + "\n"


@pytest.fixture
def synthetic_fields():
    """Factory of consistent EQDSK fields (COCOS 1, circular flux surfaces)."""
    return _make_fields


@pytest.fixture
def geqdsk_text():
    """Factory rendering EQDSK fields as file text."""
    return _make_text


@pytest.fixture
def geqdsk_file(tmp_path, synthetic_fields, geqdsk_text):
    """Path of a synthetic G-EQDSK file, with the fields used to write it."""
    fields = synthetic_fields()
    path = tmp_path / "g000001.01000"
    path.write_text(geqdsk_text(fields), encoding="utf-8")
    return path, fields
