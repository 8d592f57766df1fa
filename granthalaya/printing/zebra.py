"""Utilities for sending ZPL to Zebra printers."""

from __future__ import annotations

import socket
from typing import Iterable

from flask import current_app

from .labels import render_product_label, render_rack_label

SOCKET_TIMEOUT_SECONDS = 5.0


def send_zpl(zpl: str, host: str | None = None, port: int | None = None) -> bool:
    """Send raw ZPL to a networked Zebra printer.

    Parameters
    ----------
    zpl:
        Raw ZPL string to send to the printer.
    host:
        Printer hostname or IP address. Defaults to ``ZEBRA_PRINTER_HOST``.
    port:
        TCP port to connect to on the printer. Defaults to ``ZEBRA_PRINTER_PORT``.

    Returns
    -------
    bool
        ``True`` if the data was sent successfully, ``False`` otherwise.
    """

    host = host or current_app.config["ZEBRA_PRINTER_HOST"]
    port = int(port or current_app.config["ZEBRA_PRINTER_PORT"])
    try:
        with socket.create_connection((host, port), timeout=SOCKET_TIMEOUT_SECONDS) as sock:
            sock.sendall(zpl.encode("utf-8"))
        return True
    except OSError as exc:
        current_app.logger.error("Failed to send ZPL to printer %s:%s: %s", host, port, exc)
        return False


def _print_copies(zpl: str, copies: int) -> bool:
    if copies < 1:
        raise ValueError("At least one copy must be printed.")
    return send_zpl("\n".join([zpl] * copies))


def print_product_labels(product: object, copies: int = 1) -> bool:
    return _print_copies(render_product_label(product), copies)


def print_rack_labels(rack: object, copies: int = 1) -> bool:
    return _print_copies(render_rack_label(rack), copies)


def print_product_batch(products: Iterable[object]) -> bool:
    """Send one label per product in a single print job."""

    labels = [render_product_label(product) for product in products]
    if not labels:
        return True
    return send_zpl("\n".join(labels))
