from flask import jsonify


def api_success(data=None, status=200):
    return jsonify(data if data is not None else {}), status


def api_error(message="", status=400, **extra):
    body = {"error": message}
    body.update(extra)
    return jsonify(body), status
