from flask import current_app
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

SCANNER_EXTENSION = "granthalaya.scanners"
PACKING_EXTENSION = "granthalaya.packing"


def scanner_registry():
    return current_app.extensions[SCANNER_EXTENSION]


def packing_registry():
    return current_app.extensions[PACKING_EXTENSION]
