import re
import logging
from pathlib import Path
from typing import Optional

def sanitize_filename(filename: str, fallback: str = "figma_frame") -> str:
    """Sanitize filename by removing invalid characters"""
    invalid_chars = r'[<>:"/\\|?*&\s]'
    sanitized = re.sub(invalid_chars, '_', filename)
    sanitized = re.sub(r'_+', '_', sanitized).strip('_')
    
    if not sanitized:
        sanitized = fallback
    
    return sanitized

def frame_filename(node_id: str, name: str = "") -> str:
    """PNG filename for a rendered frame, e.g. 'Login_Screen_12_34.png' for node 12:34"""
    safe_id = node_id.replace(':', '_').replace(';', '_')
    safe_name = sanitize_filename(name, fallback="") if name else ""
    return f"{safe_name}_{safe_id}.png" if safe_name else f"{safe_id}.png"

def setup_logging(log_level: str = 'INFO', log_file: Optional[str] = None):
    """Setup logging configuration"""
    log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    
    handlers = [logging.StreamHandler()]
    
    if log_file:
        log_dir = Path(log_file).parent
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))
    
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format=log_format,
        handlers=handlers
    )
