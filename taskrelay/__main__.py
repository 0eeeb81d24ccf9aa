from taskrelay.main import cli

cli()
