from healer.cli.app import app

app(prog_name="cluster-healer")
