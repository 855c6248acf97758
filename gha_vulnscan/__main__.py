from gha_vulnscan.cli import cli

cli()
