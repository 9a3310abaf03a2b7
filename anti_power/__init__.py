"""Anti-Power patcher: reversible resource patches for Antigravity installs."""

VERSION = "1.2.0"
