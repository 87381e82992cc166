"""
常量定义

定义游戏中使用的各种常量。
"""

# 网络配置
DEFAULT_HOST = "127.0.0.1"
DEFAULT_REGISTRY_PORT = 5554
BUFFER_SIZE = 4096
MAX_FRAME_SIZE = 8 * 1024 * 1024  # 字节，单帧上限
CONNECT_TIMEOUT = 8.0  # 秒，单次连接尝试
JOIN_MAX_ATTEMPTS = 3
JOIN_BACKOFF = 1.0  # 秒，每次重试递增
CREATE_MAX_ATTEMPTS = 5

# 房间号：去掉易混淆字符（I/O/0/1）
ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
ROOM_CODE_LENGTH = 6

# 游戏配置
MIN_PLAYERS = 2
MAX_PLAYERS = 8
DRAW_TIME = 80  # 秒
TOTAL_ROUNDS = 3
HINT_COUNT = 2
WORD_CHOICES = 3
DEFAULT_LANGUAGE = "english"
MIN_CUSTOM_WORDS = 10
MAX_CUSTOM_WORD_LENGTH = 32

WORD_SELECT_TIME = 15  # 秒
ROUND_END_DELAY = 4  # 秒
TICK_INTERVAL = 1.0  # 秒

# 计分
MAX_GUESS_SCORE = 500
MIN_GUESS_SCORE = 50
DRAWER_BONUS = 25
CLOSE_GUESS_THRESHOLD = 0.8

# 画布配置
FILL_TOLERANCE = 32
UNDO_DEPTH = 20
BACKGROUND = (255, 255, 255)
DEFAULT_CANVAS_SIZE = (800, 600)
MAX_RASTER_PIXELS = 4096 * 4096

# 画笔默认值 (RGB)
BLACK = (0, 0, 0)
DEFAULT_BRUSH_SIZE = 8

# 传输层帧类型
FRAME_HELLO = "hello"
FRAME_WELCOME = "welcome"
FRAME_REJECT = "reject"
FRAME_DATA = "data"
REJECT_NOT_FOUND = "not_found"

# 消息类型
MSG_PLAYER_INFO = "playerInfo"
MSG_GAME_STATE = "gameState"
MSG_PLAYERS_UPDATE = "playersUpdate"
MSG_SETTINGS_UPDATE = "settingsUpdate"
MSG_GAME_START = "gameStart"
MSG_WORD_SELECT_PHASE = "wordSelectPhase"
MSG_WORD_CHOSEN = "wordChosen"
MSG_YOUR_WORD = "yourWord"
MSG_DRAWING_START = "drawingStart"
MSG_TIMER_UPDATE = "timerUpdate"
MSG_HINT_REVEAL = "hintReveal"
MSG_DRAW = "draw"
MSG_CHAT = "chat"
MSG_GUESS = "guess"
MSG_CORRECT_GUESS = "correctGuess"
MSG_CLOSE_GUESS = "closeGuess"
MSG_ROUND_END = "roundEnd"
MSG_GAME_END = "gameEnd"
MSG_PLAY_AGAIN = "playAgain"
MSG_TERMINATE_GAME = "terminateGame"
MSG_ERROR = "error"
