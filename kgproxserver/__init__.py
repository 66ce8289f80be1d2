"""HTTP transport for the kgprox query service."""
