"""HTTP surface (FastAPI) over the portfolio engine."""
