# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Mail submission policy engine for SMTP submission agents.

Features:
    - Authentication with username canonicalization and 2FA lockout
    - Envelope sender and From: enforcement against the user's addresses
    - Per-user daily recipient limits (SQLite or Redis counters)
    - Sent folder archival on a background worker
    - Sender Rewriting Scheme (SRS) for forwarded mail
    - Local recipient routing to the local MX over LMTP
    - Prometheus metrics and an admin CLI

Example::

    from mail_policy import HookBridge, PolicyDb, SubmissionPolicyPipeline
    from mail_policy.config_loader import load_policy_config

    config = load_policy_config("/etc/mail-policy/policy.ini")
    db = PolicyDb(config.db_path)
    await db.init_db()
    pipeline = SubmissionPolicyPipeline.from_db(config, db, body_source)
    await pipeline.start()
    HookBridge(pipeline).install(app)
"""

from .address import normalize_address
from .hooks import HookBridge
from .pipeline import Continue, Decision, Deny, Fail, SubmissionPolicyPipeline
from .policy_config import PolicyConfig
from .policy_db import PolicyDb

__version__ = "0.1.0"

__all__ = [
    "Continue",
    "Decision",
    "Deny",
    "Fail",
    "HookBridge",
    "PolicyConfig",
    "PolicyDb",
    "SubmissionPolicyPipeline",
    "normalize_address",
]
