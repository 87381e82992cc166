"""
共享模块

存放房主与玩家两端共用的代码，如常量、协议定义、异常体系。

组件说明：
- constants: 网络端口、计时/计分参数、画笔配置、消息类型名
- protocols: 基于 JSON 的消息格式（Message + 封闭的 MessageType）
- errors: 传输/协议/规则三层异常
- transport: 行分隔 JSON 帧与传输事件队列

提示：
- 传输层约定按行分隔的 JSON 串，消息体直接透传 Message.to_dict()
- 若新增公共工具，可在此模块下添加并在 __all__ 中显式导出
"""

from . import constants, errors, protocols, transport

__all__ = ["constants", "errors", "protocols", "transport"]
