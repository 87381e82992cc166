"""
注册服务主程序入口

启动房间注册（信令）服务，房主在此登记房间号，玩家凭房间号查询房主地址。
"""

import logging
import os
import time

from doodlehub.shared.constants import DEFAULT_HOST, DEFAULT_REGISTRY_PORT

logger = logging.getLogger(__name__)


def configure_logging(log_file: str = "server.log") -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.FileHandler(log_file), logging.StreamHandler()],
    )


def main():
    """启动注册服务主函数"""
    configure_logging()
    logger.info("=" * 50)
    # 支持通过环境变量覆盖主机与端口
    host = os.environ.get("HOST", DEFAULT_HOST)
    try:
        port = int(os.environ.get("PORT", DEFAULT_REGISTRY_PORT))
    except ValueError:
        logger.warning(f"PORT 无效，使用默认端口 {DEFAULT_REGISTRY_PORT}")
        port = DEFAULT_REGISTRY_PORT

    logger.info("DoodleHub 注册服务启动中...")
    logger.info(f"监听地址: {host}:{port}")
    logger.info("=" * 50)

    from doodlehub.server.registry import RegistryServer

    server = RegistryServer(host, port)
    try:
        server.start()
        logger.info("服务运行中，按 Ctrl+C 停止")
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("服务正在关闭...")
    except OSError as e:
        logger.error(f"服务错误: {e}", exc_info=True)
        raise
    finally:
        server.stop()
        logger.info("服务已停止")


if __name__ == "__main__":
    main()
