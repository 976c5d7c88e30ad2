"""
Host Monitor Agent - Linux 主机监控代理

负责：
- 每 1s 采集一次系统指标
- 逐级汇聚为 10s / 1min / 5min / 1h 四个精度并入库
- 区间查询（缺失时间点补零）
- 通过 WebSocket 向中心节点推送实时快照
"""

__version__ = "1.0.0"
__author__ = "AI-A"
