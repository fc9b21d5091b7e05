from tabbridge.cli import app

app()
