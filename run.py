#!/usr/bin/env python3
"""Rotation runner for cron or systemd timers"""
from rotator.cli import main

if __name__ == '__main__':
    raise SystemExit(main())
