"""
Example: Reading EQDSK files.
"""

from eqdskreader import Content, read_eqdsk

# Read from a path
eq = Content("input.geqdsk")

# The same content from an open stream
with open("input.geqdsk") as f:
    assert read_eqdsk(f) == eq

print(eq)
print(f"Magnetic axis: R={eq.rmaxis:.3f} m, z={eq.zmaxis:.3f} m")
print(f"COCOS of the file: {eq.cocos(phiclockwise=False)}")

# Transform to COCOS 11 and check the flux map at the axis
eq11 = eq.to_cocos(11)
eq11.check_axis_flux()

# Labelled arrays
ds = eq.to_dataset()
print(ds.qpsi)
