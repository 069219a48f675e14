from seqsearch.cli.app import app

app()
