"""MatchFyn shared runtime packages."""
