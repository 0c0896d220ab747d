# Relay protocol constants (wire type tags and fixed strings)

ID_LENGTH = 16

# Outbound mailbox capacity per connection.
DEFAULT_MAILBOX_SIZE = 10

# Largest value accepted for the u32 count fields.
U32_MAX = 2**32 - 1

# Inbound message types
T_WEBRTC_SIGNALING = "webrtcSignaling"
T_CREATE_GAME = "createGame"
T_UPDATE_GAME_INFO = "updateGameInfo"
T_LIST_GAMES = "listGames"
T_JOIN_GAME = "joinGame"
T_ACCEPT_JOIN = "acceptJoin"
T_REJECT_JOIN = "rejectJoin"

# Outbound-only message types
T_ERROR = "error"
T_GAME_CREATED = "gameCreated"
T_GAME_LIST = "gameList"
T_NEW_CLIENT = "newClient"
T_CLIENT_VANISHED = "clientVanished"

# Error reasons. Existing peers match on these strings.
ERR_INVALID_MESSAGE = "Invalid message"
ERR_NOT_HOST = "You're not a game host"
ERR_GAME_NOT_FOUND = "GameNotFound"
ERR_ALREADY_JOINED = "AlreadyJoined"
ERR_HOST_VANISHED = "Host vanished"
