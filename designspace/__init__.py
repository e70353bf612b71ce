"""designspace: backend for the 3D room designer."""
