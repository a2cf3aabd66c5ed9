from garage_books import create_app

app = create_app()
