from resellerpro import create_app

app = create_app()
