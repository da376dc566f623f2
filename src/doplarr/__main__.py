from doplarr.cli import app

app(prog_name="doplarr")
