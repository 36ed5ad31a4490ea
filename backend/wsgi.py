from rpbiz import create_app

app = create_app()
