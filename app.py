from chamada_diaria.main import create_app

app = create_app()

if __name__ == "__main__":
    # Single process: the sync loop lives in this process, so no reloader.
    app.run(debug=app.config["DEBUG"], use_reloader=False)
