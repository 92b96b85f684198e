# KEYS[1] = limiter key (one ZSET of hit timestamps per action and caller)
# ARGV = window_ms, limit, now_ms, member
# Returns {hits_in_window, ms_until_a_slot_frees, allowed}
LUA_SLIDING_WINDOW = """
local bucket = KEYS[1]
local window = tonumber(ARGV[1])
local max_hits = tonumber(ARGV[2])
local now = tonumber(ARGV[3])

redis.call("ZREMRANGEBYSCORE", bucket, "-inf", now - window)
local hits = tonumber(redis.call("ZCARD", bucket))

local allowed = 0
if hits < max_hits then
  redis.call("ZADD", bucket, now, ARGV[4])
  redis.call("PEXPIRE", bucket, window)
  hits = hits + 1
  allowed = 1
end

local wait = window
local first = redis.call("ZRANGE", bucket, 0, 0, "WITHSCORES")
if #first == 2 then
  wait = math.max(0, tonumber(first[2]) + window - now)
end

return {hits, wait, allowed}
"""
