"""Classification, relationship and flow building for Congreso open data."""
