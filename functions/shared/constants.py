# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

INITIAL_TIME_CREDITS = 10

ALL_SERVICES_CACHE_KEY = "all"
OFFLINE_ID_PREFIX = "offline_"

MIN_PASSWORD_LENGTH = 6
MIN_DESCRIPTION_LENGTH = 20
MAX_TITLE_LENGTH = 120
MIN_HOURS_REQUIRED = 0.5
MAX_HOURS_REQUIRED = 24
MIN_RATING = 1
MAX_RATING = 5
MAX_MESSAGE_LENGTH = 1024
MAX_COMMENT_LENGTH = 1024
