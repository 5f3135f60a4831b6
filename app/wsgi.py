from app.adminflow import create_app

app = create_app()
