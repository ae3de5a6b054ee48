from unify_adapter.cli.main import app


app()
