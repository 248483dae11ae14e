"""Boot information blocks, bootloader update payloads, BCT checks and Boot ROM error codes for Tegra systems."""

__version__ = "0.1.0"
__all__ = ["bootblock", "bootinfo", "tnspec", "bct", "bup", "errors"]