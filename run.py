#!/usr/bin/env python3
"""
Cluster Inventory API server
启动 FastAPI 服务器
"""

from dotenv import load_dotenv

# 加载环境变量
load_dotenv()

from inventory_api.server import serve  # noqa: E402

if __name__ == "__main__":
    serve()
