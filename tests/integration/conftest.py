import time
from http import HTTPStatus

import pytest
from flask import Response, make_response, request
from flask_httpauth import HTTPBasicAuth
from http_server_mock import HttpServerMock
from werkzeug.security import check_password_hash, generate_password_hash

app = HttpServerMock(__name__)
auth = HTTPBasicAuth()
users = {"user": generate_password_hash("pass")}


@auth.verify_password
def verify_password(username, password):
    if username in users and check_password_hash(users[username], password):
        return username


@app.get("/text")
def text():
    return "some body\nmore lines\nlast line", HTTPStatus.OK, {"Content-Type": "text/plain"}


@app.get("/status/<int:code>")
def status(code: int):
    return "", code


@app.get("/answer")
@auth.login_required
def answer():
    return {"answer": 42}, HTTPStatus.OK


@app.get("/delay/<float:seconds>")
def delay(seconds: float):
    time.sleep(seconds)
    return {"delayed": seconds}, HTTPStatus.OK


@app.get("/drip/<int:count>")
def drip(count: int):
    def generate():
        for _ in range(count):
            time.sleep(0.4)
            yield "x"

    return Response(generate(), mimetype="text/plain")


@app.post("/echo/json")
def echo_json():
    return request.get_json(force=True, silent=True) or {}, HTTPStatus.OK


@app.route("/echo/form", methods=["POST", "PUT", "PATCH"])
def echo_form():
    return {key: request.form.getlist(key) for key in request.form}, HTTPStatus.OK


@app.route("/echo/raw", methods=["POST", "PUT", "PATCH"])
def echo_raw():
    return request.get_data(), HTTPStatus.OK, {"Content-Type": "application/octet-stream"}


@app.get("/headers")
def headers():
    resp = make_response({"received": dict(request.headers)})
    resp.headers["X-Custom-Header"] = "test-value"
    resp.headers["X-Request-Id"] = "12345"
    return resp


@app.post("/login")
def login():
    resp = make_response({"logged_in": True})
    resp.set_cookie("session", "abc")
    return resp


@app.get("/whoami")
def whoami():
    return {"session": request.cookies.get("session")}, HTTPStatus.OK


@pytest.fixture
def server():
    running = app.run("localhost", 5000)
    try:
        with running:
            yield "http://localhost:5000"
    finally:
        running.process.join()
