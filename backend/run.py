from wordrush import create_app, socketio

app = create_app()

if __name__ == '__main__':
    # The timer sweep runs alongside the dev server; other processes may run `flask sweep-rounds`
    app.extensions['round_sweeper'].start()
    socketio.run(app, debug=True, use_reloader=False)
