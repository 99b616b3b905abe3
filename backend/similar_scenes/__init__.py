__all__ = ["__version__"]

# Installed wheels carry their version in distribution metadata; a bare
# source checkout falls back to a local dev version string.
try:
	from importlib.metadata import version, PackageNotFoundError
	try:
		__version__ = version("similar-scenes")
	except PackageNotFoundError:
		__version__ = "0.0.0+local"
except Exception:
	__version__ = "0.0.0+local"
