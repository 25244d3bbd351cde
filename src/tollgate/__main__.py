from tollgate.cli.app import cli

cli()
