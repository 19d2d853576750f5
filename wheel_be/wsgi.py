from wheel_be.app import create_app

# Entry point for gunicorn / `flask --app wheel_be.wsgi run`
app, socketio = create_app()

if __name__ == '__main__':
    socketio.run(app, host='0.0.0.0', port=5000, debug=app.debug)
