"""
PackWrap - packwiz 整合包管理与多格式导出工具
"""

__version__ = "0.1.0"
