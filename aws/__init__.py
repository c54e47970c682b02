#!/usr/bin/env python3
"""
Shared AWS building blocks: status file, step runner, session and the
Route53 / ACM / CloudFront helpers used by the site and redirect flows.
"""
from .status import StatusStore
from .steps import DeployError, run_step

__all__ = ['StatusStore', 'DeployError', 'run_step']
