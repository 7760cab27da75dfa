"""Payments app package: payment records, VNPay checkout and callbacks."""
