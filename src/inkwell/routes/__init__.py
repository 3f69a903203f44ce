"""HTTP routers for the InkWell API, one module per resource under `/api`."""
