# chatpatch/utils/id_generator.py
import uuid
import time

def generate_id() -> str:
    """生成撤销批次/历史快照的唯一ID: <毫秒时间戳>-<随机后缀>"""
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"

def generate_timestamp() -> float:
    """获取时间戳"""
    return time.time()
