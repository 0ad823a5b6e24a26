"""Core domain package for sendguard.

Core contains the rule table, message classification and the allow/block/ask
decision logic without any Telegram or file-format specific code, keeping the
business logic portable.
"""
