"""labdeploy CLI commands."""
