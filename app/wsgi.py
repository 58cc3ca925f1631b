from app.staffpanel import create_app

app = create_app()
